"""Domain services: board ordering, invitations, and project snapshots."""
