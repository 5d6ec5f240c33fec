# services/scheduler.py
"""
Agendador de tarefas periódicas em asyncio.

Cada tarefa roda em seu próprio loop: executa, dorme o intervalo, repete.
Uma execução que falha é logada e o loop continua.

Uso:
    scheduler = Scheduler()
    scheduler.add_job("lembretes", 60, processar_lembretes)
    scheduler.start()
    ...
    await scheduler.stop()
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

from utils.audit import log_performance

logger = logging.getLogger(__name__)


@dataclass
class ScheduledJob:
    name: str
    interval_seconds: float
    func: Callable[[], Awaitable[object]]
    run_on_start: bool = False
    runs: int = 0
    failures: int = 0


class Scheduler:
    """Executa corrotinas em intervalos fixos enquanto a aplicação estiver de pé."""

    def __init__(self):
        self.jobs: Dict[str, ScheduledJob] = {}
        self._tasks: List[asyncio.Task] = []
        self._rodando = False

    def add_job(
        self,
        name: str,
        interval_seconds: float,
        func: Callable[[], Awaitable[object]],
        run_on_start: bool = False
    ):
        self.jobs[name] = ScheduledJob(name, interval_seconds, func, run_on_start)

    async def run_job(self, name: str) -> bool:
        """Executa uma tarefa uma vez. Retorna False se ela falhou."""
        job = self.jobs[name]
        inicio = time.perf_counter()
        try:
            await job.func()
            job.runs += 1
            log_performance(f"scheduler.{name}", (time.perf_counter() - inicio) * 1000, runs=job.runs)
            return True
        except Exception as e:
            job.failures += 1
            logger.exception(f"[SCHEDULER] Erro na tarefa '{name}': {e}")
            return False

    async def _loop(self, job: ScheduledJob):
        if not job.run_on_start:
            await asyncio.sleep(job.interval_seconds)
        while self._rodando:
            await self.run_job(job.name)
            await asyncio.sleep(job.interval_seconds)

    def start(self):
        if self._rodando:
            return
        self._rodando = True
        for job in self.jobs.values():
            self._tasks.append(asyncio.create_task(self._loop(job), name=f"scheduler:{job.name}"))
        logger.info(f"[SCHEDULER] Iniciado com {len(self.jobs)} tarefas: {', '.join(self.jobs)}")

    async def stop(self):
        self._rodando = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks.clear()
        logger.info("[SCHEDULER] Parado")

    @property
    def running(self) -> bool:
        return self._rodando

    def status(self) -> Optional[List[dict]]:
        return [
            {"name": j.name, "interval_seconds": j.interval_seconds, "runs": j.runs, "failures": j.failures}
            for j in self.jobs.values()
        ]


scheduler = Scheduler()
