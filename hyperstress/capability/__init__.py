from .support_probe import AllOf, PlatformSupport, PrivilegeSupport, SupportProbe
