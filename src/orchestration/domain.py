"""Domain initialization and configuration."""

from protean.domain import Domain

# Domain Composition Root
orchestration = Domain(name="orchestration")
