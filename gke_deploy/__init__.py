"""
gke_deploy
----------

CI(Drone) 파이프라인에서 GKE 클러스터로 Kubernetes 매니페스트를 배포하는 패키지.
서비스 계정 인증, 템플릿 렌더링(시크릿 포함), dry-run 검증, apply,
네임스페이스 준비, rollout/Job 대기까지 한 번의 실행으로 처리하는 것을 목표로 한다.
"""

__all__ = [
    "config",
    "orchestrator",
]
