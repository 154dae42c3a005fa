"""Bridge de ingesta de telemetría de la estación meteorológica.

MQTT topic awsData → decode → normalize → store (tabla awsdata).
"""

__version__ = "0.1.0"
