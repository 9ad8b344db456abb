"""Last-published attribute values per device."""

from __future__ import annotations

from tradfri2mqtt.structs import DeviceId

CacheEntry = dict[str, str]


class AttributeCache:
    """Maps a device id to the values most recently handed to the publish sink.

    A stored value is recorded before the publish outcome is known, so after a
    failed publish the cache still holds the new value and an identical update
    will not be republished. Entries are never evicted; a removed device that
    comes back is compared against what was published before it left.
    """

    def __init__(self) -> None:
        self._entries: dict[DeviceId, CacheEntry] = {}

    def get(self, device_id: DeviceId) -> CacheEntry | None:
        return self._entries.get(device_id)

    def observe(self, device_id: DeviceId, key: str, value: str) -> bool:
        """Record ``value`` for ``key`` and return True when it differs from the stored one.

        A key seen for the first time always counts as changed.
        """
        entry = self._entries.setdefault(device_id, {})
        changed = key not in entry or entry[key] != value
        entry[key] = value
        return changed

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
