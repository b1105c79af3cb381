"""Adapters Layer - Implémentations concrètes des Ports.

Architecture Hexagonale: Les Adapters implémentent les interfaces
définies dans ports/ (HTTP vers les vendors LLM, stockage et
chiffrement des clés API).
"""
