"""
Location Hierarchy

Assembles flat sites/buildings/blocks/floors/rooms rows into the nested
tree served by /api/locations/tree.
"""

from collections import Counter, defaultdict


def _by_parent(rows: list[dict], key: str) -> dict:
    grouped = defaultdict(list)
    for row in rows:
        grouped[row.get(key)].append(row)
    for children in grouped.values():
        children.sort(key=lambda r: (r.get("floor_number") is None, r.get("floor_number"), r.get("name") or ""))
    return grouped


def build_location_tree(
    sites: list[dict],
    buildings: list[dict],
    blocks: list[dict],
    floors: list[dict],
    rooms: list[dict],
    devices: list[dict],
) -> list[dict]:
    """
    Nest the hierarchy: site → buildings → (blocks →) floors → rooms.

    Floors with a block_id hang under their block; the rest hang directly
    under their building. Every floor carries a device_count.
    """
    device_counts = Counter(d.get("floor_id") for d in devices)
    rooms_by_floor = _by_parent(rooms, "floor_id")

    def floor_node(floor: dict) -> dict:
        return {
            **floor,
            "rooms": rooms_by_floor.get(floor["id"], []),
            "device_count": device_counts.get(floor["id"], 0),
        }

    floors_by_block = _by_parent([f for f in floors if f.get("block_id")], "block_id")
    floors_by_building = _by_parent([f for f in floors if not f.get("block_id")], "building_id")
    blocks_by_building = _by_parent(blocks, "building_id")
    buildings_by_site = _by_parent(buildings, "site_id")

    def building_node(building: dict) -> dict:
        return {
            **building,
            "blocks": [
                {**block, "floors": [floor_node(f) for f in floors_by_block.get(block["id"], [])]}
                for block in blocks_by_building.get(building["id"], [])
            ],
            "floors": [floor_node(f) for f in floors_by_building.get(building["id"], [])],
        }

    return [
        {**site, "buildings": [building_node(b) for b in buildings_by_site.get(site["id"], [])]}
        for site in sorted(sites, key=lambda s: s.get("name") or "")
    ]
