# v1.2
import pyaudio
import logging
import threading
import queue
import numpy as np
from typing import Any, Dict, Optional

from pitchengine.frames import int16_to_float
from pitchengine.tuning_session import DEFAULT_SETTINGS, TuningSession
from pitchengine.yin_estimator import YinEstimator


class MicrophoneFrameSource:
    """
    マイク入力 (PyAudio) から固定長フレームを作り、TuningSession に渡す。

    v1.2: start() / stop() をロックで直列化。起動中の stop() で開いたストリームを必ず閉じる。
    v1.1: コールバックと解析を分離 (Producer/Consumer)。
          PyAudio のコールバックはキューに積むだけにし、
          解析スレッドが到着順に1フレームずつ session.on_frame() を呼ぶ。

    フレームは直近 frame_size サンプルのスライディングウィンドウ。
    """
    def __init__(self, session: TuningSession, config: Optional[Dict[str, Any]] = None):
        self.session = session

        self.settings = dict(DEFAULT_SETTINGS)
        if config:
            self.settings.update(config)

        self.rate = int(self.settings["sample_rate"])
        self.chunk = int(self.settings["chunk"])
        self.frame_size = int(self.settings["frame_size"])

        self.pa: Optional[pyaudio.PyAudio] = None
        self.stream = None
        self._is_running = False

        self.window = np.zeros(self.frame_size, dtype=np.float32)
        # フレーム長が検出下限に足りなければ FrameSizeError
        YinEstimator(self.rate, min_freq=float(self.settings["min_freq"])).check_frame(self.window)

        self.audio_queue: "queue.Queue[bytes]" = queue.Queue(maxsize=10)
        self.analysis_thread: Optional[threading.Thread] = None
        self.stop_event = threading.Event()

        # start() と stop() を直列化する。同じスレッドからの再入は許可
        self.lifecycle_lock = threading.RLock()

    @property
    def is_running(self) -> bool:
        return self._is_running

    def start(self) -> bool:
        with self.lifecycle_lock:
            if self._is_running:
                return True
            if not self.session.start():
                return False

            try:
                self.window.fill(0)
                self.stop_event.clear()
                with self.audio_queue.mutex:
                    self.audio_queue.queue.clear()

                self.pa = pyaudio.PyAudio()
                self._is_running = True
                self.stream = self.pa.open(
                    format=pyaudio.paInt16, channels=1, rate=self.rate,
                    input=True, frames_per_buffer=self.chunk,
                    stream_callback=self._pyaudio_callback
                )

                self.analysis_thread = threading.Thread(target=self._analysis_loop, daemon=True)
                self.analysis_thread.start()

                self.stream.start_stream()
            except Exception as e:
                logging.error(f"Stream start error: {e}")
                self._release()
                self.session.acquisition_failed(e)
                return False

            # 起動中に stop() された場合、開いたストリームはここで閉じる
            if not self.session.acquisition_ready(self.rate):
                logging.info("Stream start cancelled by stop().")
                self._release()
                return False

            logging.info("Audio stream & analysis thread started.")
            return True

    def stop(self):
        with self.lifecycle_lock:
            # 先にセッションを止める。以降のフレームは処理されない
            self.session.stop()
            self._release()
            logging.info("Audio stream stopped.")

    def _release(self):
        self._is_running = False
        self.stop_event.set()

        if self.stream:
            try:
                self.stream.stop_stream()
                self.stream.close()
            except Exception as e:
                logging.warning(f"Stream close error: {e}")
            self.stream = None

        if self.pa:
            try:
                self.pa.terminate()
            except Exception as e:
                logging.warning(f"PyAudio terminate error: {e}")
            self.pa = None

        thread = self.analysis_thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=0.5)
        self.analysis_thread = None

    def _pyaudio_callback(self, in_data, frame_count, time_info, status):
        if not self._is_running:
            return (None, pyaudio.paComplete)

        try:
            self.audio_queue.put_nowait(in_data)
        except queue.Full:
            logging.debug("Audio queue full, dropping buffer.")

        return (None, pyaudio.paContinue)

    def push_buffer(self, raw_data: bytes):
        """int16 バッファ1つ分をウィンドウへ流し込み、1サイクル解析する。"""
        new_data = int16_to_float(raw_data)
        n = min(len(new_data), self.frame_size)
        if n == 0:
            return
        self.window[:-n] = self.window[n:]
        self.window[-n:] = new_data[-n:]
        self.session.on_frame(self.window.copy(), self.rate)

    def _analysis_loop(self):
        """[Consumer] 解析スレッド"""
        while not self.stop_event.is_set():
            try:
                raw_data = self.audio_queue.get(timeout=0.1)
            except queue.Empty:
                continue

            try:
                self.push_buffer(raw_data)
            except Exception as e:
                logging.warning(f"Analysis loop error: {e}")
            finally:
                self.audio_queue.task_done()
