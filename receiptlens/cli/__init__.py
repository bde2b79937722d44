"""Unified command-line interface for receiptlens.

Usage:
    receiptlens extract <text-file|-> [--ocr-confidence 0.9] [--enhance] [--encoding latin-1] [--compact]
    receiptlens serve [--host] [--port]
"""
