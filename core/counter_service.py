"""
Cache write-back e servizio contatori.

Il servizio tiene in memoria il valore pendente di ogni contatore e lo
scrive sullo store a blocchi (flush), al massimo una volta per intervallo
configurato. Il payload di flush contiene conteggi assoluti, quindi un
flush ripetuto dopo un errore è idempotente.

Concorrenza: un asyncio.Lock protegge mappa e timestamp solo durante
l'incremento e la decisione di flush; la scrittura sullo store avviene
fuori da quel lock, su uno snapshot, serializzata da un secondo lock.
"""
import asyncio
import logging
import re
import time
from typing import Callable, Dict, Optional

from core.logger import log_json
from core.store import CounterRecord, CounterStore, StoreError

logger = logging.getLogger(__name__)

DEMO_NAME = "demo"
DEMO_COUNT = "0123456789"

NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,32}$")


def is_valid_counter_name(name: str) -> bool:
    """Nome contatore: 1-32 caratteri in [A-Za-z0-9_-]."""
    return isinstance(name, str) and NAME_PATTERN.match(name) is not None


class CounterService:
    """
    Orchestratore get-or-increment davanti allo store persistente.

    Args:
        store: Backend persistente (CounterStore)
        flush_interval: Secondi minimi tra due flush non forzati
        store_timeout: Timeout (s) applicato a ogni chiamata allo store
        clock: Sorgente tempo monotona (iniettabile nei test)
    """

    def __init__(
        self,
        store: CounterStore,
        flush_interval: float = 10.0,
        store_timeout: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.flush_interval = flush_interval
        self.store_timeout = store_timeout
        self._clock = clock
        self._cache: Dict[str, int] = {}
        self._lock = asyncio.Lock()
        self._last_flush = clock()
        self._write_lock = asyncio.Lock()

    @property
    def cache(self) -> Dict[str, int]:
        """Copia dello stato corrente della cache."""
        return dict(self._cache)

    def _increment_cached(self, name: str) -> Optional[int]:
        if name not in self._cache:
            return None
        self._cache[name] += 1
        return self._cache[name]

    async def _call_store(self, coro):
        return await asyncio.wait_for(coro, timeout=self.store_timeout)

    async def get_or_increment(self, name: str, explicit_num: int = 0) -> CounterRecord:
        """
        Risolve il valore da mostrare per un contatore.

        Priorità:
        1. Nome demo → letterale fisso, nessun accesso a cache o store
        2. explicit_num > 0 → restituito così com'è, nessuno stato modificato
        3. Altrimenti incrementa (caricando dallo store al primo accesso)

        Returns:
            CounterRecord con il valore post-incremento, oppure count=0 se lo
            store non è raggiungibile
        """
        if name == DEMO_NAME:
            return CounterRecord(name=name, count=DEMO_COUNT)
        if explicit_num > 0:
            return CounterRecord(name=name, count=explicit_num)

        async with self._lock:
            value = self._increment_cached(name)

        if value is None:
            try:
                durable = await self._call_store(self.store.get_num(name))
            except (StoreError, asyncio.TimeoutError) as e:
                logger.error(f"[COUNTER] get count by name error for {name}: {e}")
                return CounterRecord(name=name, count=0)

            async with self._lock:
                # Un'altra richiesta può aver caricato lo stesso nome nel frattempo
                value = self._increment_cached(name)
                if value is None:
                    # La lettura stessa conta come visita
                    value = int(durable.count) + 1
                    self._cache[name] = value

        await self.flush()
        return CounterRecord(name=name, count=value)

    async def flush(self, force: bool = False) -> bool:
        """
        Scrive l'intera cache sullo store con un solo set_num_multi.

        Un flush non forzato rinuncia se un'altra scrittura è in corso; un
        flush forzato attende che finisca e poi scrive il proprio snapshot.

        Args:
            force: Ignora l'intervallo; in caso di successo rimuove dalla cache
                le voci scritte

        Returns:
            True se il flush è stato eseguito con successo
        """
        if not force and self._write_lock.locked():
            return False

        async with self._write_lock:
            async with self._lock:
                if not self._cache:
                    return False
                elapsed = self._clock() - self._last_flush
                if not force and elapsed <= self.flush_interval:
                    return False
                snapshot = dict(self._cache)

            records = [CounterRecord(name=name, count=count) for name, count in snapshot.items()]
            try:
                await self._call_store(self.store.set_num_multi(records))
            except (StoreError, asyncio.TimeoutError) as e:
                logger.error(f"[FLUSH] pushDB error ({len(records)} counters): {e}")
                return False

            async with self._lock:
                self._last_flush = self._clock()
                if force:
                    for name, count in snapshot.items():
                        # Le voci avanzate durante la scrittura restano in cache
                        if self._cache.get(name) == count:
                            del self._cache[name]

        log_json("info", "pushDB", forced=force, counters=[r.to_dict() for r in records])
        return True
