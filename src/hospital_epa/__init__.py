"""Hospital EPA Bridge.

Patient records backend with FHIR R4 conversion and synchronization to an
external Electronic Patient Record (EPA) system.
"""

__version__ = "0.1.0"
