"""
Frame OCR Subtitle Generator — Pipeline Package

Turns burned-in video subtitles into a clean subtitle track:
  - frame_extractor: FFmpeg-based frame sampling
  - ocr_worker: Parallel per-frame OCR (RapidOCR)
  - similarity: Text normalization and bounded edit distance
  - selector: Representative text per segment
  - stabilizer: Observation stream → subtitle segments
  - merger: End times, URL filter, adjacent cue merging
  - subtitle_writer: SRT / VTT / plain-text output
  - analysis: Cue quality statistics
  - cpu_throttle: CPU usage monitoring and throttling
  - orchestrator: End-to-end pipeline and observation cache
"""
