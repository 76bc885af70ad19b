from bones.registry.store import ProjectMutation, ProjectRegistry

__all__ = ["ProjectMutation", "ProjectRegistry"]
