import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8080))

# "http" or "https"; https needs SSL_KEY_PATH and SSL_CERT_PATH
RELAY_SCHEME = os.getenv("RELAY_SCHEME", "http")
RELAY_PATH = os.getenv("RELAY_PATH", "/socket")

SERVICE_KEY = os.getenv("SERVICE_KEY", "")

SSL_KEY_PATH = os.getenv("SSL_KEY_PATH", "")
SSL_CERT_PATH = os.getenv("SSL_CERT_PATH", "")
SSL_CA_PATH = os.getenv("SSL_CA_PATH", "")

CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

# Namespaces
THREAD_NAMESPACE = "/pm_thread"
INBOX_NAMESPACE = "/pm_inbox"
NOTIFICATIONS_NAMESPACE = "/pm_notifications"
BROWSER_NOTIFICATION_NAMESPACE = "/pm_browser_notification"
STATUS_NAMESPACE = "/status"

# Reserved envelope events for attaching to / detaching from a namespace
CONNECT_EVENT = "connect"
DISCONNECT_EVENT = "disconnect"

CHECK_SECRET_EVENT = "check secret"
STATUS_CONFIGURED = "The private message relay is configured correctly: the service key matches."
STATUS_MISCONFIGURED = "The private message relay is not configured correctly: the service key does not match."
