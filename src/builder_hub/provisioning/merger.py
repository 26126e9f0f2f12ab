"""Merge provisioning defaults from an ordered list of modules.

Sources are folded strictly in order and later sources win per identity
key:

* tags by key; a null value keeps the earlier value and ``is_mandatory``
  is sticky once set
* security groups by id, rules by every field except ``sort_order``,
  subnets by id, volumes by device name; a match is replaced whole
* single blocks (network, AMI, keypair, user data, instance options);
  the last non-null block wins

Tags come out sorted by key, everything else by ``sort_order``.
"""

from typing import Dict, Iterable, Optional, TypeVar

from .models import (
    MergedProvisioningState,
    ProvisioningModuleDefaults,
    ProvisioningTag,
)


T = TypeVar("T")


def _sorted_by_order(items: Iterable[T]) -> list:
    # sorted() is stable, so ties keep insertion order
    return sorted(items, key=lambda item: item.sort_order)


def _override(current: Optional[T], candidate: Optional[T]) -> Optional[T]:
    return candidate.copy() if candidate is not None else current


def merge_provisioning_defaults(
    sources: Iterable[ProvisioningModuleDefaults],
) -> MergedProvisioningState:
    """Fold module defaults into a single provisioning state.

    Args:
        sources: Module defaults in template order

    Returns:
        New MergedProvisioningState sharing no objects with the sources
    """
    tags: Dict[str, ProvisioningTag] = {}
    security_groups: Dict[str, object] = {}
    rules: Dict[tuple, object] = {}
    subnets: Dict[str, object] = {}
    volumes: Dict[str, object] = {}
    merged = MergedProvisioningState()

    for source in sources:
        for tag in source.tags:
            existing = tags.get(tag.tag_key)
            value = tag.tag_value
            if value is None and existing is not None:
                value = existing.tag_value
            tags[tag.tag_key] = ProvisioningTag(
                tag_key=tag.tag_key,
                tag_value=value,
                is_mandatory=bool(tag.is_mandatory or (existing and existing.is_mandatory)),
            )

        for group in source.security_groups:
            security_groups[group.security_group_id] = group.copy()

        for rule in source.security_group_rules:
            rules[rule.identity()] = rule.copy()

        for subnet in source.network_subnets:
            subnets[subnet.subnet_id] = subnet.copy()

        for volume in source.volume_items:
            volumes[volume.device_name] = volume.copy()

        merged.network_config = _override(merged.network_config, source.network_config)
        merged.ami_config = _override(merged.ami_config, source.ami_config)
        merged.keypair_config = _override(merged.keypair_config, source.keypair_config)
        merged.user_data = _override(merged.user_data, source.user_data)
        merged.instance_options = _override(merged.instance_options, source.instance_options)

    merged.tags = sorted(tags.values(), key=lambda tag: tag.tag_key)
    merged.security_groups = _sorted_by_order(security_groups.values())
    merged.security_group_rules = _sorted_by_order(rules.values())
    merged.network_subnets = _sorted_by_order(subnets.values())
    merged.volume_items = _sorted_by_order(volumes.values())
    return merged
