"""Herald decision engine — routing, rendering, dispatch and escalation."""
