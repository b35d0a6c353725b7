"""Per-ecosystem dependency mappers (Rust, Go, Python)."""
