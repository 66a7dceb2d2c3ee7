"""Workshop activities: lifecycle, participant intake and result aggregation."""
