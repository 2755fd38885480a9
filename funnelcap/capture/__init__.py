"""Browser-driven funnel capture: navigation, snapshots and telemetry."""
