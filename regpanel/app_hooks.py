from typing import Protocol


class AppHooks(Protocol):
    """
    Protocol for application hooks supplied by the orchestration layer.

    The panel engine has no timeouts or cancellation of its own; a long-running
    build reports progress and polls for a stop request through these hooks.

    Methods:
        report_step(...): Report progress of the current stage.
        stop_requested() -> bool: Whether the caller asked the build to stop.
    """
    def report_step(self, info: str = None, target: int = None, reset_counter: bool = False, plus_step: int = 1) -> None:
        """
        Report a progress step.

        Args:
            info (str): Progress message.
            target (int): Total number of steps for the current counter.
            reset_counter (bool): Whether to restart the counter.
            plus_step (int): Number of steps completed since the last report.
        """
        pass

    def stop_requested(self) -> bool:
        """
        Check if a stop has been requested by the user.

        Returns:
            bool: True if stop is requested, False otherwise.
        """
        return False

    def update_key_value(self, key: str, value) -> None:
        """
        Report a status update with a key-value pair (e.g. 'persons', 1200).

        Args:
            key (str): Status key.
            value: Status value.
        """
        pass
