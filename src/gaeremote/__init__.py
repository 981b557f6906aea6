"""gaeremote — signed-in sessions for App Engine remote API tooling."""

__version__ = "0.1.0"
