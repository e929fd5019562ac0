"""Convert smartctl reports into Prometheus textfile metrics."""
