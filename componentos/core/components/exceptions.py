"""Exception classes for the component core"""


class ComponentOSError(Exception):
    """Base exception for all componentos errors"""
    pass


class ComponentNotFoundError(ComponentOSError):
    """Raised when a component id is not registered"""

    def __init__(self, component_id: str):
        super().__init__(f"Component with ID {component_id} not found")
        self.component_id = component_id


class VersionControlError(ComponentOSError):
    """Base exception for branch and merge failures"""
    pass


class VersionNotFoundError(VersionControlError):
    """Raised when a version id does not exist for a component"""

    def __init__(self, component_id: str, version_id: str):
        super().__init__(f"Version {version_id} not found for component {component_id}")
        self.component_id = component_id
        self.version_id = version_id


class BranchNotFoundError(VersionControlError):
    """Raised when a branch id or name cannot be resolved"""

    def __init__(self, branch_ref: str):
        super().__init__(f"Branch {branch_ref} not found")
        self.branch_ref = branch_ref


class BranchExistsError(VersionControlError):
    """Raised when a branch name is already taken for a component"""
    pass


class EmptyBranchError(VersionControlError):
    """Raised when a merge references a branch with no versions"""
    pass


class PluginError(ComponentOSError):
    """Base exception for plugin lifecycle failures"""
    pass


class PluginNotFoundError(PluginError):
    """Raised when a plugin id is not registered"""

    def __init__(self, plugin_id: str):
        super().__init__(f"Plugin with ID {plugin_id} not found")
        self.plugin_id = plugin_id


class PluginInitializationError(PluginError):
    """Raised when a plugin's initialize() fails"""
    pass
