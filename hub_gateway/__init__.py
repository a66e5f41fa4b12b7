"""Gateway entre los hubs de sensores (MQTT), la base de datos y los dashboards."""

__version__ = "0.4.0"
