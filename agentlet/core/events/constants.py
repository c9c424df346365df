"""
Event name constants.

Names produced by the registry, loader and modules. Module-scoped events are
also forwarded to the bus as ``module:<name>:<event>``.

Usage:
    from agentlet.core.events import Events

    bus.on(Events.MODULE_ACTIVATED, on_module_activated)
"""


class Events:
    """Standard event names used on the EventBus."""

    # Registry
    MODULE_REGISTERED = "module:registered"
    MODULE_REGISTRATION_FAILED = "module:registrationFailed"
    MODULE_ACTIVATED = "module:activated"
    MODULE_DEACTIVATED = "module:deactivated"
    MODULE_UNREGISTERED = "module:unregistered"
    MODULE_UNLOADED = "module:unloaded"
    APPLICATION_DETECTED = "application:detected"
    APPLICATION_NOT_DETECTED = "application:notDetected"
    URL_CHANGED = "url:changed"

    # Remote registries
    REGISTRY_LOADED = "registry:loaded"
    REGISTRY_LOAD_FAILED = "registry:loadFailed"

    # Module-local lifecycle
    LIFECYCLE_INIT = "lifecycle:init"
    LIFECYCLE_ACTIVATE = "lifecycle:activate"
    LIFECYCLE_CLEANUP = "lifecycle:cleanup"
    INITIALIZED = "initialized"
    CLEANUP = "cleanup"
    PAGE_ANALYZED = "pageAnalyzed"
    MODULE_LAUNCHED = "moduleLaunched"
    SUBMODULE_ACTIVATED = "submoduleActivated"
    SUBMODULE_DEACTIVATED = "submoduleDeactivated"
    APPLICATION_LEFT = "applicationLeft"
    SETTINGS_UPDATED = "settingsUpdated"
    STYLES_INJECTED = "stylesInjected"
    STYLES_REMOVED = "stylesRemoved"
    LOCAL_STORAGE_CHANGE = "localStorageChange"
    ACTION_STARTED = "actionStarted"
    ACTION_COMPLETED = "actionCompleted"
    ACTION_FAILED = "actionFailed"
    CONTENT_REFRESH_STARTED = "contentRefreshStarted"
    CONTENT_REFRESH_COMPLETED = "contentRefreshCompleted"
    URL_UPDATED = "urlUpdated"
    EXECUTION_STARTED = "executionStarted"
    EXECUTION_COMPLETED = "executionCompleted"
    EXECUTION_FAILED = "executionFailed"
    HISTORY_CLEARED = "historyCleared"
    ERROR = "error"

    # Host collaboration
    PERMISSION_REQUEST = "permission:request"
    STORAGE_CHANGED = "storage:changed"
    UI_REFRESH_CONTENT = "ui:refreshContent"
