from .routes import milk_pool_bp

__all__ = ['milk_pool_bp']
