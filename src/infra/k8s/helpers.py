from __future__ import annotations

from cachetools.func import lru_cache  # type: ignore

from src.infra.constants import DEFAULT_CONSTANTS
from src.infra.k8s.controller import CaptainController, CaptainControllerSync


@lru_cache(maxsize=4)
def get_controller(
    component: str = DEFAULT_CONSTANTS.EVENT_COMPONENT,
) -> CaptainController:
    """Get an instance of the CaptainController.

    Args:
        component: Source component recorded on created events

    Returns:
        An instance of CaptainController
    """
    from src.infra.k8s.kr8s_controller import Kr8sController

    return Kr8sController(component)


def get_controller_sync(
    component: str = DEFAULT_CONSTANTS.EVENT_COMPONENT,
) -> CaptainControllerSync:
    """Get a synchronous wrapper for CaptainController.

    Each call returns a new wrapper with its own event loop over the shared
    controller; the caller closes it when done.

    Returns:
        An instance of CaptainControllerSync wrapping the async controller
    """
    return CaptainControllerSync(get_controller(component))
