"""Motor de precios jerárquicos (BASE → UBICACIÓN → SERVICE POINT) sobre Supabase."""

__version__ = "1.0.0"
