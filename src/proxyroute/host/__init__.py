from proxyroute.host.navigator import HttpNavigator, Navigator, RecordingNavigator

__all__ = [
    "HttpNavigator",
    "Navigator",
    "RecordingNavigator",
]
