"""Streetlight command bridge between a device platform and a LoRaWAN downlink queue."""
