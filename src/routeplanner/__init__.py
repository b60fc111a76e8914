"""Route Planner backend package."""
