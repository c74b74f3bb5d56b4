"""AT-command line building and response parsing for ESP8266 Wi-Fi modules."""

__version__ = "0.1.0"