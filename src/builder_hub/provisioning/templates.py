"""Instance templates composed from provisioning modules.

A template is an ordered list of module ids. Resolving it looks each id
up in a ``ModuleCatalog`` and folds the module defaults in that order.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union
import yaml

from .merger import merge_provisioning_defaults
from .models import MergedProvisioningState, ProvisioningModuleDefaults


class UnknownModuleError(Exception):
    """Raised when a template references an unknown module."""
    pass


class ModuleCatalogError(Exception):
    """Raised when a module file cannot be loaded."""
    pass


@dataclass
class ProvisioningModule:
    """Named snapshot of reusable provisioning defaults."""

    id: str
    name: str
    defaults: ProvisioningModuleDefaults = field(default_factory=ProvisioningModuleDefaults)
    description: Optional[str] = None


@dataclass
class InstanceTemplate:
    """Ordered composition of modules; later modules override earlier ones.

    ``mandatory_tag_keys`` are tags every instance built from the template
    must carry, whether or not a module marks them mandatory.
    """

    name: str
    module_ids: List[str] = field(default_factory=list)
    description: Optional[str] = None
    mandatory_tag_keys: List[str] = field(default_factory=list)


class ModuleCatalog:
    """Modules addressable by id."""

    def __init__(self) -> None:
        self._modules: Dict[str, ProvisioningModule] = {}

    def __len__(self) -> int:
        return len(self._modules)

    def __contains__(self, module_id: str) -> bool:
        return module_id in self._modules

    def add(self, module: ProvisioningModule) -> None:
        """Add or replace a module snapshot."""
        self._modules[module.id] = module

    def get(self, module_id: str) -> ProvisioningModule:
        """Get a module by id.

        Raises:
            UnknownModuleError: When no module has this id
        """
        try:
            return self._modules[module_id]
        except KeyError:
            raise UnknownModuleError(f"Provisioning module not found: {module_id}")

    def load_yaml(self, path: Union[str, Path]) -> int:
        """Load modules from a YAML file with a top-level ``modules`` list.

        Each entry needs ``id`` and ``name``; the remaining keys are module
        defaults (``tags``, ``securityGroups``, ``amiConfig``, ...).

        Returns:
            Number of modules loaded

        Raises:
            ModuleCatalogError: When the file is missing, malformed or an
                entry has no id
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ModuleCatalogError(f"Invalid YAML in module file {path}: {e}")
        except IOError as e:
            raise ModuleCatalogError(f"Unable to read module file {path}: {e}")

        entries = data.get("modules") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise ModuleCatalogError(f"Module file {path} must contain a 'modules' list")

        for entry in entries:
            if not isinstance(entry, dict) or entry.get("id") is None:
                raise ModuleCatalogError(f"Module entry without id in {path}")
            module_id = str(entry["id"])
            try:
                defaults = ProvisioningModuleDefaults.from_dict(entry)
            except (TypeError, AttributeError, ValueError) as e:
                raise ModuleCatalogError(f"Invalid module entry {module_id} in {path}: {e}")
            self.add(
                ProvisioningModule(
                    id=module_id,
                    name=entry.get("name", module_id),
                    description=entry.get("description"),
                    defaults=defaults,
                )
            )
        return len(entries)


def resolve_template(
    template: InstanceTemplate, catalog: ModuleCatalog
) -> MergedProvisioningState:
    """Merge the template's modules in declared order.

    Raises:
        UnknownModuleError: When a module id is not in the catalog
    """
    sources = [catalog.get(module_id).defaults for module_id in template.module_ids]
    return merge_provisioning_defaults(sources)


def missing_mandatory_tags(
    state: MergedProvisioningState, mandatory_tag_keys: Iterable[str] = ()
) -> List[str]:
    """Keys of mandatory tags that still have no value.

    A tag is mandatory when any merged module marks it so or when its key
    is listed in ``mandatory_tag_keys`` (usually the template's own
    list). Template keys not already reported follow the merged tags in
    the order given.
    """
    values = {tag.tag_key: (tag.tag_value or "").strip() for tag in state.tags}
    missing = [
        tag.tag_key
        for tag in state.tags
        if tag.is_mandatory and not values[tag.tag_key]
    ]
    for key in mandatory_tag_keys:
        if key not in missing and not values.get(key):
            missing.append(key)
    return missing
