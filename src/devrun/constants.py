"""Constants for devrun."""

# Subprocess timeouts (seconds)
BUILD_TIMEOUT = 1800  # 30 minutes for gradle/xcodebuild
INSTALL_TIMEOUT = 300
TEST_TIMEOUT = 1800
DEVICE_QUERY_TIMEOUT = 30
MEDIA_TIMEOUT = 120
INIT_TOOL_CHECK_TIMEOUT = 10

# Device lock
LOCK_TIMEOUT = 30
LOCK_POLL_INTERVAL = 1
LOCK_DIR_PREFIX = "devrun-device-lock-"
LOCK_PID_FILE = "pid"

# Device boot
BOOT_TIMEOUT = 120
BOOT_POLL_INTERVAL = 2
ANDROID_SETTLE_DELAY = 10

# Exit codes
EXIT_SIGINT = 130
EXIT_SIGTERM = 143
