"""Device state ownership and the mutation gate."""

from device_simulator.state.store import DeviceStore

__all__ = ["DeviceStore"]
