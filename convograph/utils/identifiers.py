"""ID generation and timestamp utilities."""

import time
import uuid


def generate_node_id() -> str:
    """Generate a unique node ID."""
    return f"node-{uuid.uuid4().hex[:12]}"


def generate_edge_id(source: str, target: str) -> str:
    """Generate an edge ID that stays readable in exported snapshots."""
    return f"edge-{source}-{target}-{uuid.uuid4().hex[:8]}"


def generate_message_id(role: str) -> str:
    """Generate a unique message ID tagged with its role."""
    return f"msg-{uuid.uuid4().hex[:12]}-{role}"


def generate_branch_id() -> str:
    """Generate a unique branch ID."""
    return f"branch-{uuid.uuid4().hex[:12]}"


def generate_project_id() -> str:
    """Generate a unique project ID (UUID4)."""
    return f"project-{uuid.uuid4()}"


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)
