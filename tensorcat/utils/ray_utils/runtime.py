from typing import Optional

import ray


def get_current_ray_task_id() -> Optional[str]:
    """Returns the ID of the Ray task running the caller, or None when the
    caller is not running inside a Ray task (e.g. on the driver or when Ray
    has not been initialized)."""
    if not ray.is_initialized():
        return None
    return ray.get_runtime_context().get_task_id()


def get_current_node_ip_address() -> Optional[str]:
    """Returns the IP address of the current Ray node, or None if Ray has not
    been initialized."""
    if not ray.is_initialized():
        return None
    return ray.util.get_node_ip_address()
