"""Version Control - append-only, branchable history of component source code.

Every component owns a newest-first log of immutable snapshots. Branches
are named, growable pointers into that log; a default branch is created
with a component's first version and receives every version that is not
explicitly recorded on another branch.

Merging is last-snapshot-wins: the merged version takes the source
branch's latest snapshot verbatim. There is no three-way content merge and
the merged version's description says so.
"""

import difflib
import logging
from typing import Dict, List, Optional, Tuple

from ulid import ULID

from componentos.core.components.exceptions import (
    BranchExistsError,
    BranchNotFoundError,
    EmptyBranchError,
    VersionNotFoundError,
)
from componentos.core.components.models import (
    ComponentVersion,
    VersionBranch,
    VersionDiff,
    VersionSummary,
)
from componentos.core.events import Event, EventBus
from componentos.core.time import format_epoch_ms, utc_now_ms

logger = logging.getLogger(__name__)


def diff_source(
    old_source: str,
    new_source: str,
    from_label: str = "before",
    to_label: str = "after",
    context_lines: int = 3,
) -> Tuple[str, int, int, int]:
    """Compute a line-oriented diff between two source texts.

    Uses the context diff format so replaced lines carry their own marker:
    `+ ` added, `- ` removed, `! ` changed. A changed line is listed in both
    the old and the new half of its hunk; it is counted once, from the new half.

    Returns:
        (diff_text, added_lines, removed_lines, changed_lines); diff_text is
        empty when the sources are identical
    """
    diff_lines = list(difflib.context_diff(
        old_source.splitlines(),
        new_source.splitlines(),
        fromfile=from_label,
        tofile=to_label,
        n=context_lines,
        lineterm="",
    ))

    added = removed = changed = 0
    in_new_half = False
    for line in diff_lines:
        if line.startswith("*** ") and line.endswith(" ****"):
            in_new_half = False
        elif line.startswith("--- ") and line.endswith(" ----"):
            in_new_half = True
        elif line.startswith("+ "):
            added += 1
        elif line.startswith("- "):
            removed += 1
        elif line.startswith("! ") and in_new_half:
            changed += 1

    return "\n".join(diff_lines), added, removed, changed


class VersionControl:
    """Manages component version history, branching, and merging"""

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        main_branch_name: str = "main",
        diff_context_lines: int = 3,
    ):
        """Initialize version control.

        Args:
            event_bus: Bus receiving version/branch/merge events
            main_branch_name: Name of the branch created with a component's first version
            diff_context_lines: Context lines around each diff hunk
        """
        self.event_bus = event_bus or EventBus()
        self.main_branch_name = main_branch_name
        self.diff_context_lines = diff_context_lines

        self._history: Dict[str, List[ComponentVersion]] = {}  # component_id -> newest first
        self._branches: Dict[str, VersionBranch] = {}  # branch_id -> branch
        self._component_branches: Dict[str, List[str]] = {}  # component_id -> branch ids
        self._main_branches: Dict[str, str] = {}  # component_id -> main branch id

    # ============================================
    # Versions
    # ============================================

    def create_version(
        self,
        component_id: str,
        source_code: str,
        description: str,
        author: Optional[str] = None,
        parent_version_id: Optional[str] = None,
        branch_id: Optional[str] = None,
    ) -> ComponentVersion:
        """Record a new snapshot of a component's source code.

        Source content is not validated here; callers validate before
        recording.

        Args:
            component_id: The ID of the component
            source_code: The source code for the new version
            description: A description of the changes
            author: Optional author of the changes
            parent_version_id: Parent in the version DAG (defaults to the
                head of the branch the version is appended to)
            branch_id: Branch to append to (defaults to the main branch)

        Returns:
            The newly created version

        Raises:
            BranchNotFoundError: If branch_id is given but unknown for the component
        """
        target_branch = None
        if branch_id is not None:
            target_branch = self._resolve_branch(component_id, branch_id)
        elif component_id in self._main_branches:
            target_branch = self._branches[self._main_branches[component_id]]

        versions = self._history.setdefault(component_id, [])

        if parent_version_id is None:
            if target_branch is not None:
                parent_version_id = target_branch.head_version_id
            elif versions:
                parent_version_id = versions[0].id

        timestamp = utc_now_ms()
        if versions and versions[0].timestamp > timestamp:
            timestamp = versions[0].timestamp

        version = ComponentVersion(
            id=str(ULID()),
            timestamp=timestamp,
            source_code=source_code,
            description=description,
            author=author,
            parent_version_id=parent_version_id,
        )
        versions.insert(0, version)

        if target_branch is None:
            target_branch = self._allocate_branch(component_id, version.id, self.main_branch_name)
            self._main_branches[component_id] = target_branch.id
        elif version.id not in target_branch.version_ids:
            target_branch.version_ids.append(version.id)

        logger.debug(
            f"Created version {version.id} for {component_id} on branch "
            f"'{target_branch.name}' ({len(versions)} total)"
        )
        self.event_bus.emit(Event.version_created(component_id, version.id, target_branch.id))
        return version

    def record_revert(
        self,
        component_id: str,
        version_id: str,
        author: Optional[str] = None,
    ) -> ComponentVersion:
        """Append a new version that restores an earlier snapshot.

        History is never rewritten: the old version stays where it is and
        a new head carrying its source is added.

        Raises:
            VersionNotFoundError: If the version does not exist for the component
        """
        target = self.get_version(component_id, version_id)
        if target is None:
            raise VersionNotFoundError(component_id, version_id)

        restored_at = format_epoch_ms(target.timestamp)
        version = self.create_version(
            component_id,
            target.source_code,
            f"Reverted to version {version_id} from {restored_at}",
            author=author,
        )
        self.event_bus.emit(Event.version_reverted(component_id, version_id, version.id))
        return version

    def get_version_history(self, component_id: str) -> List[ComponentVersion]:
        """Get version history for a component, newest first (empty if unknown)."""
        return list(self._history.get(component_id, ()))

    def get_version(self, component_id: str, version_id: str) -> Optional[ComponentVersion]:
        """Get a specific version of a component, or None."""
        for version in self._history.get(component_id, ()):
            if version.id == version_id:
                return version
        return None

    def get_latest_version(self, component_id: str) -> Optional[ComponentVersion]:
        versions = self._history.get(component_id)
        return versions[0] if versions else None

    def compare_versions(
        self,
        component_id: str,
        from_version_id: str,
        to_version_id: str,
    ) -> Optional[VersionDiff]:
        """Compare two versions of a component.

        Args:
            component_id: The ID of the component
            from_version_id: The ID of the older version
            to_version_id: The ID of the newer version

        Returns:
            Version diff or None if either version is missing
        """
        from_version = self.get_version(component_id, from_version_id)
        to_version = self.get_version(component_id, to_version_id)
        if from_version is None or to_version is None:
            return None

        diff_text, added, removed, changed = diff_source(
            from_version.source_code,
            to_version.source_code,
            from_label=from_version_id,
            to_label=to_version_id,
            context_lines=self.diff_context_lines,
        )
        if not diff_text:
            diff_text = f"No differences found between versions {from_version_id} and {to_version_id}"

        return VersionDiff(
            component_id=component_id,
            from_version_id=from_version_id,
            to_version_id=to_version_id,
            diff=diff_text,
            added_lines=added,
            removed_lines=removed,
            changed_lines=changed,
        )

    def get_version_summary(self, component_id: str) -> VersionSummary:
        """Summarize a component's version history."""
        versions = self._history.get(component_id, [])
        return VersionSummary(
            total_versions=len(versions),
            branches=len(self._component_branches.get(component_id, ())),
            latest_version=versions[0] if versions else None,
            first_version=versions[-1] if versions else None,
        )

    def purge_history(self, component_id: str) -> int:
        """Delete a component's versions and branches (explicit audit purge).

        Returns:
            Number of versions removed
        """
        removed = self._history.pop(component_id, [])
        for branch_id in self._component_branches.pop(component_id, []):
            self._branches.pop(branch_id, None)
        self._main_branches.pop(component_id, None)

        if removed:
            logger.info(f"Purged {len(removed)} versions of {component_id}")
        return len(removed)

    # ============================================
    # Branches
    # ============================================

    def _allocate_branch(self, component_id: str, version_id: str, name: str) -> VersionBranch:
        branch = VersionBranch(
            id=str(ULID()),
            name=name,
            component_id=component_id,
            root_version_id=version_id,
            version_ids=[version_id],
            created_at=utc_now_ms(),
        )
        self._branches[branch.id] = branch
        self._component_branches.setdefault(component_id, []).append(branch.id)

        logger.debug(f"Created branch '{name}' ({branch.id}) for {component_id} at {version_id}")
        self.event_bus.emit(Event.branch_created(component_id, branch.id, name, version_id))
        return branch

    def _find_branch(self, component_id: str, branch_ref: str) -> Optional[VersionBranch]:
        branch = self._branches.get(branch_ref)
        if branch is not None and branch.component_id == component_id:
            return branch
        for branch_id in self._component_branches.get(component_id, ()):
            candidate = self._branches[branch_id]
            if candidate.name == branch_ref:
                return candidate
        return None

    def _resolve_branch(self, component_id: str, branch_ref: str) -> VersionBranch:
        branch = self._find_branch(component_id, branch_ref)
        if branch is None:
            raise BranchNotFoundError(branch_ref)
        return branch

    def create_branch(self, component_id: str, version_id: str, branch_name: str) -> str:
        """Create a branch rooted at an existing version.

        Args:
            component_id: The ID of the component
            version_id: The ID of the version to branch from
            branch_name: Name for the new branch (unique per component)

        Returns:
            ID of the new branch

        Raises:
            VersionNotFoundError: If the version does not exist for the component
            BranchExistsError: If the component already has a branch with that name
        """
        if self.get_version(component_id, version_id) is None:
            raise VersionNotFoundError(component_id, version_id)

        if not branch_name or not branch_name.strip():
            raise ValueError("Branch name cannot be empty")

        for branch_id in self._component_branches.get(component_id, ()):
            if self._branches[branch_id].name == branch_name:
                raise BranchExistsError(
                    f"Branch '{branch_name}' already exists for component {component_id}"
                )

        return self._allocate_branch(component_id, version_id, branch_name).id

    def get_branches(self, component_id: str) -> List[VersionBranch]:
        """Get all branches of a component, in creation order."""
        return [
            self._branches[branch_id].model_copy(deep=True)
            for branch_id in self._component_branches.get(component_id, ())
        ]

    def get_branch(self, component_id: str, branch_ref: str) -> Optional[VersionBranch]:
        """Get a branch by id or by name, or None."""
        branch = self._find_branch(component_id, branch_ref)
        return branch.model_copy(deep=True) if branch is not None else None

    def get_main_branch(self, component_id: str) -> Optional[VersionBranch]:
        branch_id = self._main_branches.get(component_id)
        return self._branches[branch_id].model_copy(deep=True) if branch_id else None

    def add_version_to_branch(self, branch_id: str, version_id: str) -> None:
        """Append a version to a branch if it is not already on it.

        Raises:
            BranchNotFoundError: If the branch is unknown
            VersionNotFoundError: If the version is not in the branch's component history
        """
        branch = self._branches.get(branch_id)
        if branch is None:
            raise BranchNotFoundError(branch_id)
        if self.get_version(branch.component_id, version_id) is None:
            raise VersionNotFoundError(branch.component_id, version_id)

        if version_id not in branch.version_ids:
            branch.version_ids.append(version_id)

    def merge_branches(
        self,
        component_id: str,
        source_branch: str,
        target_branch: str,
        merge_message: str,
    ) -> str:
        """Merge one branch into another.

        The merged version takes the source branch's latest snapshot as-is,
        has the target branch's latest version as parent and is appended to
        the target branch.

        Args:
            component_id: The ID of the component
            source_branch: ID or name of the source branch
            target_branch: ID or name of the target branch
            merge_message: Description of the merge

        Returns:
            ID of the new merged version

        Raises:
            BranchNotFoundError: If either branch is unknown
            EmptyBranchError: If either branch has no versions
            VersionNotFoundError: If a branch head is missing from the history
        """
        source = self._resolve_branch(component_id, source_branch)
        target = self._resolve_branch(component_id, target_branch)

        for branch in (source, target):
            if not branch.version_ids:
                raise EmptyBranchError(f"Branch '{branch.name}' has no versions")

        source_version = self.get_version(component_id, source.head_version_id)
        if source_version is None:
            raise VersionNotFoundError(component_id, source.head_version_id)
        target_head_id = target.head_version_id
        if self.get_version(component_id, target_head_id) is None:
            raise VersionNotFoundError(component_id, target_head_id)

        merged = self.create_version(
            component_id,
            source_version.source_code,
            f"Merged branch '{source.name}' into '{target.name}' "
            f"(source snapshot taken as-is): {merge_message}",
            parent_version_id=target_head_id,
            branch_id=target.id,
        )

        logger.info(f"Merged branch '{source.name}' into '{target.name}' for {component_id}")
        self.event_bus.emit(Event.merge_completed(component_id, source.id, target.id, merged.id))
        return merged.id
