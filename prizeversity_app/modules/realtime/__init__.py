# Socket.IO handlers must be declared before socketio.init_app runs
from . import sockets  # noqa: F401
from .events import register_events


def setup_module(app):
    """
    Initialize the realtime bridge.
    Connects domain signals to Socket.IO emitters.
    """
    register_events()
    app.logger.info("Realtime Module Initialized.")
