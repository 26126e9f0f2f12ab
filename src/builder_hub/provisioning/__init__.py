"""Provisioning modules, their merge and template composition.

This package holds the module default types, the ordered
last-source-wins merge and the templates built on top of it.
"""

from builder_hub.provisioning.merger import merge_provisioning_defaults
from builder_hub.provisioning.models import (
    MergedProvisioningState,
    ProvisioningModuleDefaults,
)
from builder_hub.provisioning.templates import (
    InstanceTemplate,
    ModuleCatalog,
    ProvisioningModule,
    missing_mandatory_tags,
    resolve_template,
)

__all__ = [
    'merge_provisioning_defaults',
    'MergedProvisioningState',
    'ProvisioningModuleDefaults',
    'InstanceTemplate',
    'ModuleCatalog',
    'ProvisioningModule',
    'missing_mandatory_tags',
    'resolve_template',
]
