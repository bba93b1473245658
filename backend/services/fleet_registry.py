"""
Fleet registry persistence service.

Directory of vehicles and drivers stored in a JSON file. Scheduling reads it
to confirm that the requested vehicle and driver exist and are available;
when no registry is configured those checks are skipped.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from config import config

logger = logging.getLogger(__name__)

ACTIVE_STATUS = "active"
_COLLECTIONS = ("vehicles", "drivers")


class FleetRegistry:
    """Simple thread-safe JSON-backed registry for vehicles and drivers."""

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        base_dir = Path(__file__).resolve().parents[1]
        self.storage_path = storage_path or (base_dir / "data" / "fleet_registry.json")
        self._lock = threading.Lock()
        self._ensure_storage()

    @staticmethod
    def _empty() -> Dict[str, Any]:
        return {"version": 1, "vehicles": [], "drivers": []}

    def _ensure_storage(self) -> None:
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        if not self.storage_path.exists():
            self._write_data(self._empty())

    def _read_data(self) -> Dict[str, Any]:
        try:
            with self.storage_path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return self._empty()
        except json.JSONDecodeError:
            logger.warning(f"[FleetRegistry] {self.storage_path} is not valid JSON, treating it as empty")
            return self._empty()
        if not isinstance(data, dict):
            return self._empty()

        normalized = {"version": int(data.get("version", 1) or 1)}
        for collection in _COLLECTIONS:
            items = data.get(collection, [])
            normalized[collection] = [item for item in items if isinstance(item, dict)] if isinstance(items, list) else []
        return normalized

    def _write_data(self, data: Dict[str, Any]) -> None:
        with self.storage_path.open("w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

    def _find(self, collection: str, item_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            for item in self._read_data().get(collection, []):
                if str(item.get("id", "")) == str(item_id):
                    return item
            return None

    def _register(self, collection: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            data = self._read_data()
            items = data[collection]
            item_id = str(payload.get("id", "") or uuid4())
            if any(str(item.get("id", "")) == item_id for item in items):
                raise ValueError(f"{collection[:-1].capitalize()} '{item_id}' already exists")

            now = datetime.utcnow().isoformat()
            item = {
                "id": item_id,
                "company_id": str(payload.get("company_id", "") or "").strip() or None,
                "name": str(payload.get("name", "") or "").strip() or None,
                "status": str(payload.get("status", ACTIVE_STATUS) or ACTIVE_STATUS),
                "created_at": now,
                "updated_at": now,
            }
            if collection == "vehicles":
                item["plate"] = str(payload.get("plate", "") or "").strip() or None
                item["capacity"] = int(payload.get("capacity") or 0)
            items.append(item)
            self._write_data(data)
            return item

    def _set_status(self, collection: str, item_id: str, status: str) -> Dict[str, Any]:
        with self._lock:
            data = self._read_data()
            for item in data[collection]:
                if str(item.get("id", "")) == str(item_id):
                    item["status"] = status
                    item["updated_at"] = datetime.utcnow().isoformat()
                    self._write_data(data)
                    return item
            raise KeyError(f"{collection[:-1].capitalize()} not found")

    # Vehicles

    def list_vehicles(self) -> List[Dict[str, Any]]:
        with self._lock:
            return sorted(self._read_data()["vehicles"], key=lambda v: str(v.get("id", "")))

    def get_vehicle(self, vehicle_id: str) -> Optional[Dict[str, Any]]:
        return self._find("vehicles", vehicle_id)

    def register_vehicle(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._register("vehicles", payload)

    def set_vehicle_status(self, vehicle_id: str, status: str) -> Dict[str, Any]:
        return self._set_status("vehicles", vehicle_id, status)

    # Drivers

    def list_drivers(self) -> List[Dict[str, Any]]:
        with self._lock:
            return sorted(self._read_data()["drivers"], key=lambda d: str(d.get("id", "")))

    def get_driver(self, driver_id: str) -> Optional[Dict[str, Any]]:
        return self._find("drivers", driver_id)

    def register_driver(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._register("drivers", payload)

    def set_driver_status(self, driver_id: str, status: str) -> Dict[str, Any]:
        return self._set_status("drivers", driver_id, status)

    @staticmethod
    def is_available(item: Dict[str, Any], company_id: Optional[str] = None) -> bool:
        """Active, and registered for ``company_id`` when the entry names one."""
        if str(item.get("status", "")) != ACTIVE_STATUS:
            return False
        owner = item.get("company_id")
        return company_id is None or not owner or owner == company_id


def get_fleet_registry() -> Optional[FleetRegistry]:
    """Registry configured through FLEET_REGISTRY_PATH, or None when unset."""
    if not config.FLEET_REGISTRY_PATH:
        return None
    return FleetRegistry(Path(config.FLEET_REGISTRY_PATH))
