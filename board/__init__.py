"""Challenge-tracking dashboard: challenges, actions, activities and contacts."""
