"""Resolution delegates: fetch declared artifacts from declared repositories."""

from gradle_runtime.resolver.base import ResolutionDelegate
from gradle_runtime.resolver.maven import MavenResolver

__all__ = ["MavenResolver", "ResolutionDelegate"]
