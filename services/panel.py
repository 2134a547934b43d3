from loguru import logger


class Panel:
    """
    Visibility state of the launcher panel.
    The window layer listens through callbacks and shows or hides itself.
    """

    def __init__(self):
        self.visible = False
        self._callbacks = []

    def add_callback(self, callback):
        """Add a callback function to be notified of visibility changes"""
        self._callbacks.append(callback)

    def remove_callback(self, callback):
        """Remove a callback function"""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self):
        for callback in self._callbacks:
            try:
                callback(self.visible)
            except Exception as e:
                logger.warning(f"Error in panel callback: {e}")

    def open(self):
        if not self.visible:
            self.visible = True
            self._notify_callbacks()

    def close(self):
        if self.visible:
            self.visible = False
            self._notify_callbacks()

    def toggle(self):
        self.visible = not self.visible
        self._notify_callbacks()
