"""Provisioning module defaults and merged state.

Every type accepts both the camelCase payload emitted by the module
authoring layer (``tagKey``, ``sortOrder``) and snake_case keys, and
serialises back to camelCase.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional, Type, TypeVar


T = TypeVar("T", bound="_Payload")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


class _Payload:
    """Dict conversion shared by all provisioning types."""

    @classmethod
    def from_dict(cls: Type[T], data: Dict[str, Any]) -> T:
        kwargs = {}
        for f in fields(cls):
            camel = _camel(f.name)
            if camel in data:
                kwargs[f.name] = data[camel]
            elif f.name in data:
                kwargs[f.name] = data[f.name]
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {_camel(f.name): getattr(self, f.name) for f in fields(self)}

    def copy(self: T) -> T:
        return replace(self)


@dataclass
class ProvisioningTag(_Payload):
    tag_key: str
    tag_value: Optional[str] = None
    is_mandatory: bool = False


@dataclass
class ProvisioningSecurityGroup(_Payload):
    security_group_id: str
    sort_order: int = 0


@dataclass
class ProvisioningSecurityGroupRule(_Payload):
    direction: str
    protocol: str
    from_port: Optional[int] = None
    to_port: Optional[int] = None
    cidr: Optional[str] = None
    source_security_group_id: Optional[str] = None
    description: Optional[str] = None
    sort_order: int = 0

    def identity(self) -> tuple:
        """Dedup key: every field except ``sort_order``."""
        return (
            self.direction,
            self.protocol,
            self.from_port,
            self.to_port,
            self.cidr,
            self.source_security_group_id,
            self.description,
        )


@dataclass
class ProvisioningNetworkConfig(_Payload):
    vpc_id: str
    assign_public_ip: bool = False


@dataclass
class ProvisioningNetworkSubnet(_Payload):
    subnet_id: str
    sort_order: int = 0


@dataclass
class ProvisioningAmiConfig(_Payload):
    ami_id: str
    architecture: Optional[str] = None


@dataclass
class ProvisioningKeypairConfig(_Payload):
    keypair_name: str


@dataclass
class ProvisioningUserData(_Payload):
    content: str
    content_type: Optional[str] = None
    is_base64: bool = False


@dataclass
class ProvisioningInstanceOptions(_Payload):
    instance_type: Optional[str] = None
    ebs_optimized: Optional[bool] = None
    monitoring: Optional[bool] = None
    tenancy: Optional[str] = None
    cpu_credits: Optional[str] = None
    iam_instance_profile_arn: Optional[str] = None
    hibernation_enabled: Optional[bool] = None


@dataclass
class ProvisioningVolumeItem(_Payload):
    device_name: str
    size_gb: Optional[int] = None
    volume_type: Optional[str] = None
    iops: Optional[int] = None
    throughput: Optional[int] = None
    encrypted: Optional[bool] = None
    kms_key_id: Optional[str] = None
    delete_on_termination: Optional[bool] = None
    is_root: Optional[bool] = None
    sort_order: int = 0


_COLLECTIONS = {
    "tags": ProvisioningTag,
    "security_groups": ProvisioningSecurityGroup,
    "security_group_rules": ProvisioningSecurityGroupRule,
    "network_subnets": ProvisioningNetworkSubnet,
    "volume_items": ProvisioningVolumeItem,
}

_BLOCKS = {
    "network_config": ProvisioningNetworkConfig,
    "ami_config": ProvisioningAmiConfig,
    "keypair_config": ProvisioningKeypairConfig,
    "user_data": ProvisioningUserData,
    "instance_options": ProvisioningInstanceOptions,
}


def _lookup(data: Dict[str, Any], name: str) -> Any:
    camel = _camel(name)
    if data.get(camel) is not None:
        return data[camel]
    return data.get(name)


@dataclass
class _ProvisioningShape:
    tags: List[ProvisioningTag] = field(default_factory=list)
    security_groups: List[ProvisioningSecurityGroup] = field(default_factory=list)
    security_group_rules: List[ProvisioningSecurityGroupRule] = field(default_factory=list)
    network_config: Optional[ProvisioningNetworkConfig] = None
    network_subnets: List[ProvisioningNetworkSubnet] = field(default_factory=list)
    ami_config: Optional[ProvisioningAmiConfig] = None
    keypair_config: Optional[ProvisioningKeypairConfig] = None
    user_data: Optional[ProvisioningUserData] = None
    instance_options: Optional[ProvisioningInstanceOptions] = None
    volume_items: List[ProvisioningVolumeItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]):
        """Build from a payload; missing collections are empty, missing blocks None."""
        data = data or {}
        kwargs: Dict[str, Any] = {}
        for name, item_type in _COLLECTIONS.items():
            kwargs[name] = [item_type.from_dict(item) for item in _lookup(data, name) or []]
        for name, block_type in _BLOCKS.items():
            block = _lookup(data, name)
            kwargs[name] = block_type.from_dict(block) if block else None
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, list):
                result[_camel(f.name)] = [item.to_dict() for item in value]
            else:
                result[_camel(f.name)] = value.to_dict() if value is not None else None
        return result


@dataclass
class ProvisioningModuleDefaults(_ProvisioningShape):
    """Defaults contributed by one provisioning module."""


@dataclass
class MergedProvisioningState(_ProvisioningShape):
    """Deduplicated, canonically ordered result of merging module defaults."""

    def is_empty(self) -> bool:
        return all(
            not getattr(self, f.name) for f in fields(self)
        )
