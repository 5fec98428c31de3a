# wheelflow/core/constants.py
"""Filenames and fixed values shared by the store, graph and validation layers."""

PROJECT_JSON_FILENAME = "prj.wheel.json"
COMPONENT_JSON_FILENAME = "cmp.wheel.json"
PROJECT_SUFFIX = ".wheel"
PS_SETTING_FILENAME = "parameterSetting.json"

PROJECT_FORMAT_VERSION = 2
PS_SETTING_VERSION = 2

DEFAULT_PROJECT_STATE = "not-started"

# keys that only live in memory while a project is running
RUNTIME_ONLY_KEYS = ("handler", "doCleanup", "sbsID", "childLoopRunning")

LOCALHOST = "localhost"

# component properties that update_component refuses to touch directly
PROTECTED_PROPS = ("path", "inputFiles", "outputFiles", "env")
