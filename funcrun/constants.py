# the local hostname under which function endpoints are reachable
LOCALHOST = "localhost"
# the address a port must be bindable on to be handed out to a function
BIND_HOST_ALL = "0.0.0.0"

# default encoding used to convert strings to byte arrays (mainly for Python 3 compatibility)
DEFAULT_ENCODING = "utf-8"

APPLICATION_JSON = "application/json"

# strings to indicate truthy values
TRUE_STRINGS = ("1", "true", "True")
# strings with valid log levels for FUNCRUN_LOG
LOG_LEVELS = ("trace", "debug", "info", "warn", "error", "warning")
# trace log level, configurable via $FUNCRUN_LOG
FUNCRUN_LOG_TRACE = "trace"
TRACE_LOG_LEVELS = [FUNCRUN_LOG_TRACE]

# default execution engine binary, looked up on the PATH
DEFAULT_ENGINE_PATH = "deno"

# name of the cache folder below the working directory
CACHE_FOLDER = ".cache"
# prefix of the per-function folders inside the cache folder
FUNCTION_FOLDER_PREFIX = "function-"
# folder (inside the cache folder) used by the engine for its module cache
ENGINE_CACHE_FOLDER = "deno"

# file name of the rendered function wrapper inside a function folder
FUNCTION_WRAPPER_FILE = "function.js"
# file name of the runtime entry point served by the engine
FUNCTION_SERVER_FILE = "function_server.ts"

# default values for the port allocation window
DEFAULT_PORT_RANGE_START = 8000
DEFAULT_PORT_RANGE_SIZE = 10000
DEFAULT_PORT_MAX_ATTEMPTS = 1000

# default maximum time (in seconds) a function process may take to accept connections
DEFAULT_BOOT_TIMEOUT = 30
