"""
Module Registry

Deployed logic modules, addressed by the hash of their source.

Design:
- modules/{identity}.py - deployed module source
- identity = 0x + first 40 hex digits of sha256(source)
- Deploying identical source twice gives the same identity
- A module identity is only valid if it points at deployed code
"""

from pathlib import Path
from typing import Any, Dict, List

from object_gateway.core.errors import ModuleNotDeployedError
from object_gateway.core.identity import code_address, is_null
from object_gateway.core.module_loader import (
    get_module_metadata,
    get_state_layout,
    load_module,
)


class ModuleRegistry:
    """
    Registry of deployed logic modules.

    Each module is stored in:
    - modules/{identity}.py
    """

    def __init__(self, base_dir: Path | str):
        """
        Initialize module registry.

        Args:
            base_dir: Base directory for module storage
        """
        self.base_dir = Path(base_dir)
        self.modules_dir = self.base_dir / 'modules'
        self.modules_dir.mkdir(parents=True, exist_ok=True)

    def deploy(self, path: str | Path) -> str:
        """
        Deploy a module from a source file.

        Returns:
            The module identity
        """
        path = Path(path)
        if not path.is_file():
            raise ModuleNotDeployedError(f"Module file not found: {path}")
        return self.deploy_source(path.read_text())

    def deploy_source(self, source: str) -> str:
        """
        Deploy a module from source code.

        The source is loaded once before it is accepted, so a broken module
        never gets an identity.

        Returns:
            The module identity
        """
        identity = code_address(source)
        module_file = self._module_file(identity)

        if not module_file.exists():
            staging_file = self.modules_dir / f'.{identity}.staging.py'
            staging_file.write_text(source)
            try:
                load_module(staging_file, reload=True)
            except Exception:
                staging_file.unlink()
                raise
            staging_file.rename(module_file)

        return identity

    def is_deployed(self, identity: Any) -> bool:
        if is_null(identity) or not isinstance(identity, str):
            return False
        return self._module_file(identity).is_file()

    def resolve(self, identity: str) -> Any:
        """
        Load the module behind an identity.

        Raises:
            ModuleNotDeployedError: If nothing is deployed at that identity
        """
        if not self.is_deployed(identity):
            raise ModuleNotDeployedError(f"No module deployed at {identity}")
        return load_module(self._module_file(identity))

    def layout(self, identity: str) -> Dict[str, Any]:
        """Storage layout declared by the module"""
        return get_state_layout(self.resolve(identity))

    def get_source(self, identity: str) -> str:
        if not self.is_deployed(identity):
            raise ModuleNotDeployedError(f"No module deployed at {identity}")
        return self._module_file(identity).read_text()

    def get_metadata(self, identity: str) -> Dict[str, Any]:
        metadata = get_module_metadata(self.resolve(identity))
        metadata['identity'] = identity
        return metadata

    def list_modules(self) -> List[str]:
        """Identities of all deployed modules"""
        return sorted(
            p.stem for p in self.modules_dir.glob('0x*.py')
        )

    def _module_file(self, identity: str) -> Path:
        # Identities are hex; anything else can't name a file here
        if not identity.startswith('0x') or not all(c in '0123456789abcdef' for c in identity[2:]):
            return self.modules_dir / '__invalid__'
        return self.modules_dir / f'{identity}.py'
