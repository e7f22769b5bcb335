"""Desktop Notification Manager for Strongbox"""

import logging
import shutil
import subprocess

MAX_ERROR_LENGTH = 100


class NotificationManager:
    """Sends desktop notifications for archive operations"""

    def __init__(self):
        self.logger = logging.getLogger("NotificationManager")
        self.enabled = self._check_notification_support()

    def _check_notification_support(self) -> bool:
        """Check if notify-send is available (Linux/WSL)"""
        if shutil.which("notify-send"):
            self.logger.debug("Desktop notifications enabled (notify-send)")
            return True

        self.logger.debug("Desktop notifications not available")
        return False

    def send(self, title: str, message: str, urgency: str = "normal", icon: str | None = None) -> bool:
        """Send a desktop notification

        Args:
            title: Notification title
            message: Notification message
            urgency: Urgency level ('low', 'normal', 'critical')
            icon: Optional icon name

        Returns:
            True if notification sent successfully, False otherwise
        """
        if not self.enabled:
            return False

        cmd = ["notify-send", f"--urgency={urgency}"]
        if icon:
            cmd.extend(["--icon", icon])
        cmd.extend([title, message])

        try:
            subprocess.run(cmd, check=False, capture_output=True, timeout=10)
        except (OSError, subprocess.SubprocessError) as e:
            self.logger.warning(f"Failed to send notification: {e}")
            return False
        return True

    def notify_archive_success(self, server_id: str, size_mb: float = 0) -> bool:
        """Notify that a server archive was written"""
        message = f"Server: {server_id}"
        if size_mb > 0:
            message += f"\nSize: {size_mb:.2f} MB"

        return self.send("Archive Created", message, urgency="normal", icon="emblem-default")

    def notify_archive_failure(self, server_id: str, error: str = "") -> bool:
        """Notify that archiving a server failed"""
        message = f"Server: {server_id}"
        if error:
            error_short = error[:MAX_ERROR_LENGTH] + "..." if len(error) > MAX_ERROR_LENGTH else error
            message += f"\nError: {error_short}"

        return self.send("Archive Failed", message, urgency="critical", icon="dialog-error")

    def notify_batch_complete(self, success_count: int, total_count: int) -> bool:
        """Notify that an archive run over several servers finished"""
        if success_count == total_count:
            title = "Archive Run Complete"
            icon = "emblem-default"
        else:
            title = "Archive Run Partially Complete"
            icon = "dialog-warning"

        return self.send(title, f"{success_count}/{total_count} servers archived", urgency="normal", icon=icon)
