"""
核心模块包 (Core Module Package)

PulseWatch 的基础组件：配置管理、数据库连接、Redis 客户端、安全认证、
依赖注入和全局异常处理。

Foundational components for PulseWatch: configuration, database and Redis
connections, authentication, dependency injection and global error handling.
"""
