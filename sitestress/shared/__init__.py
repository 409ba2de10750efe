"""Cross-cutting helpers shared by the engine, probes and CLI."""
