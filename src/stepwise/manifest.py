"""
Manifest inspection - pick verification commands from a project's scripts.

Only ``package.json`` scripts are recognised. A combined ``preflight``
script wins outright; otherwise build, typecheck, lint and test run in
that order, preferring ``:ci`` variants when present. A missing or
unreadable manifest is a normal state: callers fall back to
generator-proposed verification.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

MANIFEST_NAME = "package.json"


@dataclass
class ProjectManifest:
	"""Script names available in a workspace manifest."""
	path: Path
	scripts: dict[str, str] = field(default_factory=dict)

	def has_script(self, name: str) -> bool:
		return name in self.scripts

	def verification_commands(self) -> list[str]:
		"""Return the shell commands to run, in priority order."""
		if self.has_script("preflight"):
			return ["npm run preflight"]

		commands = []
		if self.has_script("build"):
			commands.append("npm run build")
		if self.has_script("typecheck"):
			commands.append("npm run typecheck")
		if self.has_script("lint:ci"):
			commands.append("npm run lint:ci")
		elif self.has_script("lint"):
			commands.append("npm run lint")
		if self.has_script("test:ci"):
			commands.append("npm run test:ci")
		elif self.has_script("test"):
			commands.append("npm run test")
		return commands


def load_manifest(workspace: Path) -> Optional[ProjectManifest]:
	"""Read the workspace manifest, or None if absent or unreadable."""
	path = Path(workspace) / MANIFEST_NAME
	if not path.is_file():
		return None

	try:
		data = json.loads(path.read_text(encoding="utf-8"))
	except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
		logger.warning(f"Ignoring unreadable manifest {path}: {e}")
		return None

	scripts = data.get("scripts") if isinstance(data, dict) else None
	if not isinstance(scripts, dict):
		scripts = {}

	return ProjectManifest(
		path=path,
		scripts={str(k): str(v) for k, v in scripts.items()},
	)
