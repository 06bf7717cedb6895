"""
PulseWatch 路由模块包 (PulseWatch Router Module Package)

本包包含后端 API 的所有路由模块，按功能域组织。

=== 认证 (Authentication) ===
- auth.py: 注册、登录、JWT 令牌刷新、当前用户

=== 服务监控 (Service Monitoring) ===
- services.py: 服务增删改查、最新状态、探测历史、手动探测
- metrics.py: 跨服务的最新探测结果和历史查询
- health_checks.py: 手动触发一次完整的健康检查 tick

=== 告警和通知 (Alerts and Notifications) ===
- alert_rules.py: 告警规则增删改查
- notifications.py: 通知记录查询、手动分发

=== 仪表盘和日志 (Dashboard and Logs) ===
- dashboard.py: 汇总统计
- dashboard_ws.py: WebSocket 实时推送探测结果和告警通知
- logs.py: 服务活动日志

路由注册:
所有路由模块在 main.py 中通过 app.include_router() 统一注册，
当前所有 API 使用 /api/v1/ 前缀。
"""
